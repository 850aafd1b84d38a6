import setuptools

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setuptools.setup(
    name="sourcescan",
    version="0.1.0",
    description="LCMV beamformer scans of the neural activity index for epoched M/EEG data",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=setuptools.find_packages(exclude=["tests", "tests.*"]),
    install_requires=['numpy', 'scipy', 'mne>=1.6', 'pandas', 'tqdm', 'joblib>=1.3', 'colorednoise>=2.1'],
    extras_require={'test': ['pytest']},
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires='>=3.10',
)
