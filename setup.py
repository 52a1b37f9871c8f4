from pathlib import Path

from setuptools import find_packages, setup

setup(
    name="sitemapper",
    version=Path("./sitemapper/VERSION").read_text().strip(),
    description="Floor-plan annotation engine with image and PDF report export",
    packages=find_packages(include=["sitemapper", "sitemapper.*"]),
    package_data={"sitemapper": ["VERSION"]},
    python_requires=">=3.8",
    install_requires=[
        "numpy",
        "opencv-python-headless",
        "matplotlib",
        "easydict",
        "reportlab",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": ["sitemapper = sitemapper.cli:main"],
    },
)
