from setuptools import setup, find_packages

setup(
    name='homelabctl',
    version='0.1.0',
    packages=find_packages(exclude=['homelabctl.tests']),
    include_package_data=True,
    install_requires=[
        'typer[all]',
        'kubernetes',
        'pydantic>=2',
        'python-dotenv',
        'PyYAML',
        'requests'
    ],
    extras_require={
        'dev': [
            'pytest',
            'pytest-cov',
        ]
    },
    entry_points={
        'console_scripts': [
            'homelabctl=homelabctl.cli:main'
        ]
    },
    author='Your Name',
    description='Idempotent bootstrap of a single-node K3s homelab with Helm charts and a step-ca issuer',
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: POSIX :: Linux',
    ],
    python_requires='>=3.8',
)
