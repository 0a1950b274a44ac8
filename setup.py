# setup.py

from setuptools import setup, find_packages

setup(
    name="capacity-scheduler",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "kubernetes<37",
        "urllib3",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        'console_scripts': [
            'capacity-scheduler=capacity_scheduler.cli:main',
        ],
    },
    author="Your Name",
    author_email="your.email@example.com",
    description="Capacity-aware pod scheduler with all-or-nothing group placement",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    keywords="kubernetes scheduler placement capacity",
    python_requires=">=3.7",
)
