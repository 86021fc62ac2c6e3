from setuptools import setup, find_packages

setup(
    name="blogsite-client",
    version="1.0.0",
    description="Async client and command-line tool for the blog site API",
    package_dir={"": "src"},
    packages=find_packages("src"),
    python_requires=">=3.9",
    install_requires=[
        'aiohttp>=3.8.0',
        'multidict>=6.0.0',
        'pydantic>=2.0.0',
        'pydantic-settings>=2.0.0',
        'python-dotenv>=1.0.0',
        'typer>=0.9.0',
        'rich>=13.0.0',
    ],
    extras_require={
        'test': [
            'pytest>=7.0.0',
            'pytest-asyncio>=0.21.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'blogapi=blogapi.cli:main',
        ],
    },
)
