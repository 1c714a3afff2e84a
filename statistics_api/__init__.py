# Public-facing Statistics API.
