"""Web service: SPA, share snapshots, Gemini delegation and render proxies."""
