"""
fluorescence_sim.optics
-----------------------
Optical blur of the specimen by the objective lens.
The PSF is modeled as a separable Gaussian applied in two 1-D passes with
edge-extended borders.
"""
