"""
FastAPI application example with ReviewGate integration.

This example demonstrates:
- Mounting the invitation routes (auth link, accept)
- Keeping pure reviewers off owner-only pages
- Resuming the review flow after sign-in with a session-backed continuation

Run with:
    uvicorn examples.fastapi_app:app --reload
"""

from typing import Dict

from fastapi import Depends, FastAPI
from fastapi.responses import RedirectResponse

from reviewgate import Identity, ReviewGate, links
from reviewgate.integrations.fastapi import ReviewGateFastAPI, get_gate

app = FastAPI(
    title="ReviewGate Example API",
    description="Example API demonstrating ReviewGate integration",
    version="1.0.0",
)

review = ReviewGateFastAPI(app)
app.include_router(review.router(), prefix="/api")

# Stand-in for a per-user session store
sessions: Dict[str, Dict[str, str]] = {}


@app.get("/")
async def landing():
    return {"message": "Welcome! Check your invitations to start reviewing."}


@app.get("/dashboard")
async def dashboard(identity: Identity = Depends(review.require_reviewer_access())):
    """Owners only; pure reviewers are redirected to the landing page."""
    return {"projects_for": identity.email}


@app.get("/review/{token}")
async def review_page(token: str, gate: ReviewGate = Depends(get_gate)):
    """Anonymous entry point: remember the invitation and send to sign-in."""
    invite = await gate.invites.get_by_token(token, with_resource=False)
    if invite is None:
        return {"error": "Invalid invitation link"}

    store = sessions.setdefault(invite.target_email.lower(), {})
    gate.continuation(store).save(links.review_url(token), token)

    mode = await gate.identities.auth_mode_for(invite.target_email)
    return RedirectResponse(links.auth_url(token, email=invite.target_email, mode=mode))


@app.get("/after-login")
async def after_login(
    identity: Identity = Depends(review.require_identity()),
    gate: ReviewGate = Depends(get_gate),
):
    """Where the auth page lands; resumes a saved review flow once."""
    store = sessions.setdefault(identity.email.lower(), {})
    pending = gate.continuation(store).consume()
    return RedirectResponse(pending.redirect_url if pending else links.DASHBOARD_URL)
