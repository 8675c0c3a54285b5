"""
Stream source resolution and a same-origin HLS relay.
"""
