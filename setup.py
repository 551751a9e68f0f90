from setuptools import setup, find_packages

setup(
    name='search-backup',
    version='1.0.0',
    long_description='Backup and restore of Azure AI Search indexes through local JSON staging files',
    packages=find_packages(exclude=['test', 'test.*']),
    include_package_data=True,
    zip_safe=False,
    python_requires='>=3.11',
    install_requires=[
        'Flask>=2.1.0',
        'requests',
        'shapely>=1.5.15',
        'azure-identity>=1.12.0',
    ],
    extras_require={
        'dev': [
            'pytest>=7.4.0',
            'pytest-cov>=4.1.0',
            'black>=23.0.0',
            'flake8>=6.0.0',
            'isort>=5.12.0',
        ]
    },
    entry_points={
        'console_scripts': [
            'search-backup=search_backup.cli:main',
        ]
    }
)
