"""Unit tests and testing tools for the cfssl_sidekick package."""

TEST_DOMAINS = ["app.example.com", "app.web.svc.cluster.local", "10.0.0.1"]
TEST_ENDPOINT = "https://ca.example.com"
TEST_PROFILE = "server"
