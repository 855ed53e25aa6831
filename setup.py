"""
Установочный скрипт для пула исполнителей.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Чтение README
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding='utf-8')

setup(
    name="job-worker-pool",
    version="1.0.0",
    author="Job Pool Team",
    author_email="team@jobpool.example.com",
    description="Пул изолированных исполнителей с очередью именованных задач, прогрессом и заменой упавших исполнителей",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/example/job-worker-pool",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "Topic :: System :: Distributed Computing",
    ],
    python_requires=">=3.8",
    install_requires=[
        "psutil>=5.9.0",
        "pyyaml>=6.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
        ],
    },
    keywords="worker pool job queue progress message passing process pool fault recovery",
    project_urls={
        "Bug Reports": "https://github.com/example/job-worker-pool/issues",
        "Source": "https://github.com/example/job-worker-pool",
    },
)
