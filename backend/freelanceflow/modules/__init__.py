"""
Modular monolith package.

Bounded-context modules live under `backend/freelanceflow/modules/*`.
Routers call the services in these modules rather than invoking
repositories directly.
"""
