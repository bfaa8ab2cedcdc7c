"""HTTP plumbing: problem+json rendering, error mapping, request ids."""
