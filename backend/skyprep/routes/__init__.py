"""HTTP routes for the SkyPrep session backend."""
