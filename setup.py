from setuptools import setup, find_packages

setup(
    name='objdata',
    version='0.1.0',
    description='Per-object batch loader for particle/goo physics trajectories with PyTorch',
    packages=find_packages(include=['objdata', 'objdata.*']),
    python_requires='>=3.10',
    install_requires=[
        'numpy',
        'torch',
        'h5py',
        'pyyaml',
        'lightning',
        'tensorboard',
        'tqdm',
        'matplotlib',
    ],
    extras_require={
        'dev': ['pytest'],
    },
    package_data={'objdata.train': ['config.yaml']},
    include_package_data=True,
)
