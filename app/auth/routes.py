from flask import flash, redirect, render_template, request, url_for
from flask_login import current_user, login_required, login_user, logout_user

from app.auth import auth_bp
from app.errors import AuthError, ValidationError
from app.services.accounts import sign_in_or_register


def _safe_redirect_target(raw_next: str | None, fallback: str) -> str:
    candidate = (raw_next or "").strip()
    if candidate.startswith("/") and not candidate.startswith("//"):
        return candidate
    return fallback


@auth_bp.route("/auth", methods=["GET", "POST"])
def sign_in():
    next_url = _safe_redirect_target(
        request.form.get("next") or request.args.get("next"),
        url_for("web.dashboard"),
    )
    if current_user.is_authenticated:
        return redirect(next_url)

    email = ""
    if request.method == "POST":
        email = (request.form.get("email") or "").strip()
        try:
            user = sign_in_or_register(email, request.form.get("password"))
        except (ValidationError, AuthError) as exc:
            flash(exc.message, "error")
        else:
            login_user(user, remember=True)
            return redirect(next_url)

    return render_template("auth.html", email=email, next_url=next_url)


@auth_bp.route("/auth/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return redirect(url_for("auth.sign_in"))
