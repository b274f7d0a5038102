"""
fluorescence_sim.sensor
-----------------------
Detector model for fluorescence acquisition:
    photons → Poisson counts → gain → offset → read noise → bit-depth clip.
Random draws come from RandomVariates so a seeded run is reproducible.
"""
