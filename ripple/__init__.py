"""Echo transfer simulation and dose-response analysis backend."""
