"""
Phantom-based calibration of OCT field distortion.

A candidate coefficient set is scored by how far the fitted radius of every
angular section of every corrected phantom surface lies from the known
phantom radius; a simplex search minimises that score.
"""
