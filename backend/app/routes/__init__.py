# Application routes are versioned under v1/ and mounted in app.main
