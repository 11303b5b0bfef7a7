"""Starter .svnpilot.toml template."""

DEFAULT_TOML = """\
# svnpilot configuration
version = "1.0"

[svn]
executable = "svn"        # path to the svn binary; bare name is looked up on PATH
timeout_seconds = 300     # 10..3600
poll_interval = 0.1       # seconds between termination/cancel checks
non_interactive = true    # pass --non-interactive to every command
english_messages = true   # force LC_MESSAGES=C for parseable output

[log]
limit = 100               # 1..10000
verbose = true            # include changed paths

[output]
format = "terminal"       # terminal | json
show_summary = true
"""
