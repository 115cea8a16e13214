"""
Report Service package for the report gateway.

The service authenticates against the upstream student-management API with a
service account, fetches entities on behalf of callers and turns them into
report artifacts on local disk.

Structure:
- app.main: FastAPI app, routes, and wiring.
- app.adapters: Upstream HTTP client, credential store, document synthesizer.
- app.domain: Report models, capability interfaces, and the orchestrator.
"""
