from setuptools import setup, find_packages

setup(
    name="hoops",
    version="0.1",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["initialize_sheets"],
    install_requires=[
        "streamlit",
        "pandas",
        "numpy",
        "google-api-python-client",
        "google-auth",
        "google-auth-httplib2",
        "google-auth-oauthlib",
        "extra_streamlit_components",
        "qrcode[pil]",
        "requests",
        "fastapi",
        "uvicorn",
    ],
    extras_require={
        "test": ["pytest", "httpx"],
    },
    entry_points={
        "console_scripts": [
            "hoops-api=hoops.api:main",
            "hoops-init-sheets=initialize_sheets:main",
        ],
    },
)
