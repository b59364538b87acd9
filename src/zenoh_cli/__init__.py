"""Interactive and scriptable command line client for Zenoh."""
