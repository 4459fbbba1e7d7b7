"""setuptools / py2app setup for ZenBell.

Install for development:
    pip install -e ".[test]"

Build a macOS .app bundle:
    pip install py2app
    python setup.py py2app
"""

import sys

from setuptools import setup, find_packages

APP = ["main.py"]
DATA_FILES = []
OPTIONS = {
    "argv_emulation": False,
    "iconfile": None,
    "plist": {
        "CFBundleName": "ZenBell",
        "CFBundleDisplayName": "ZenBell",
        "CFBundleIdentifier": "com.zenbell.app",
        "CFBundleVersion": "0.1.0",
        "CFBundleShortVersionString": "0.1.0",
        "NSHighResolutionCapable": True,
        "NSMicrophoneUsageDescription": "ZenBell listens for claps to ring the bell.",
        "NSCameraUsageDescription": "ZenBell watches for a raised hand to ring the bell.",
        "LSMinimumSystemVersion": "13.0",
    },
}

bundle_args = {}
if "py2app" in sys.argv:
    bundle_args = {
        "app": APP,
        "data_files": DATA_FILES,
        "options": {"py2app": OPTIONS},
        "setup_requires": ["py2app"],
    }

setup(
    name="ZenBell",
    version="0.1.0",
    packages=find_packages(exclude=["tests"]),
    python_requires=">=3.10",
    install_requires=[
        "PyQt6>=6.5",
        "numpy>=1.24",
    ],
    extras_require={
        "test": ["pytest>=7"],
    },
    **bundle_args,
)
