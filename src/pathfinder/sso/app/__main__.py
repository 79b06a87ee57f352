from pathfinder.sso.app.cli import invoke

invoke()
