#!/usr/bin/env python

from setuptools import setup

setup(
    name="files_manager",
    version="1.0.0",
    description="API for multi-user file storage with image thumbnails",
    packages=["files_manager", "files_manager.api", "files_manager.objectstorage", "files_manager.systemdata"],
    include_package_data=True,
    zip_safe=False,
    python_requires=">=3.11",
    keywords=["API", "files", "storage"],
    classifiers=[
        "License :: OSI Approved :: MIT License",
        "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
    ],
    install_requires=[
        "fastapi[all]",
        "elasticsearch[async]~=8.6",
        "redis>=5.0.1",
        "Pillow",
        "python-dotenv",
        "pydantic>=2",
        "pydantic-settings",
        "uvicorn",
    ],
    extras_require={
        "dev": [
            "pytest",
            "anyio",
            "httpx",
            "fakeredis>=2.20",
            "mypy",
            "flake8",
        ],
        "test": [
            "pytest",
            "anyio",
            "httpx",
            "fakeredis>=2.20",
        ],
    },
    entry_points={
        "console_scripts": [
            "files_manager = files_manager.__main__:main"
        ]
    },
)
