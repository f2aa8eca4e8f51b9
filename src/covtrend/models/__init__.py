"""Data models shared across covtrend."""
