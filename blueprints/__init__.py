"""
Blueprint registration for the study portal engine.

All blueprints are registered without URL prefixes; each route spells out its
full /api path.
"""

from __future__ import annotations


def register_blueprints(app):
    from blueprints.gamification import bp as gamification_bp
    from blueprints.timer import bp as timer_bp
    from blueprints.homework import bp as homework_bp

    app.register_blueprint(gamification_bp)
    app.register_blueprint(timer_bp)
    app.register_blueprint(homework_bp)
