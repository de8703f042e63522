"""Vehicle state layer.

Events published by a link, the live telemetry tracker, and the throttle
that keeps high-frequency streams from flooding observers.
"""
