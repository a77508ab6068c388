"""Business logic services. Plain functions taking a Session first."""
