from setuptools import setup, find_packages


setup(
    name='torch_csc',
    version='0.1.0',
    packages=find_packages(include=['torch_csc', 'torch_csc.*']),
    install_requires=[
        'torch>=2.1.0',
        'numpy'
    ],
    extras_require={
        'test':['pytest','scipy'],
        'docs':['sphinx', 'furo']
    }
)
