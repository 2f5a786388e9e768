from setuptools import setup

setup(
    name="media-stream-detector",
    version="0.1.0",
    description="Detect and rank playable media streams from tab traffic and page markup",
    author="debarshi17",
    author_email="your-email@example.com",
    package_dir={"": "src"},
    py_modules=[
        "candidate_aggregator",
        "detector_cli",
        "detector_config",
        "detector_errors",
        "dom_scanner",
        "har_import",
        "media_models",
        "network_capture",
        "page_fetcher",
        "session_manager",
        "stream_classifier",
        "stream_rules",
        "utils",
    ],
    install_requires=[
        "requests>=2.31.0",
        "beautifulsoup4>=4.12.2",
        "pyyaml>=6.0.1",
        "pydantic>=2.5.0",
        "fastapi>=0.109.0",
        "uvicorn>=0.27.0",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "live": ["playwright>=1.40.0"],
        "test": ["pytest>=7.4.0", "httpx>=0.26.0"],
    },
    entry_points={
        "console_scripts": [
            "media-detector=detector_cli:main",
        ],
    },
    python_requires=">=3.9",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Multimedia :: Video",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3.9",
    ],
)
