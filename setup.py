"""
Установочный скрипт бенчмарка конвертации изображений.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Чтение README
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding='utf-8')

setup(
    name="heic-bench",
    version="1.0.0",
    author="Worker Pool Team",
    author_email="team@workerpool.example.com",
    description="Бенчмарк конвертации HEIC -> JPEG в текущем процессе и в воркер-процессах",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Operating System :: POSIX",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Multimedia :: Graphics :: Graphics Conversion",
        "Topic :: System :: Benchmark",
    ],
    python_requires=">=3.8",
    install_requires=[
        "Pillow>=10.0.0",
        "pillow-heif>=0.13.0",
        "psutil>=5.9.0",
        "pyyaml>=6.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "pytest-mock>=3.10.0",
            "black>=22.0.0",
            "flake8>=5.0.0",
            "mypy>=1.0.0",
            "isort>=5.12.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "heic-bench=heic_bench.cli:main",
        ],
    },
    keywords="heic jpeg image conversion benchmark multiprocessing worker process",
)
