"""Configuration for PeerBank."""
