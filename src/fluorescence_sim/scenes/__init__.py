"""
fluorescence_sim.scenes
-----------------------
Synthetic specimens (beads, filaments, cells, test targets) and image-file
loading for driving the simulator without a host application.
"""
