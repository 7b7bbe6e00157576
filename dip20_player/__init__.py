"""DIP20 Scenario Player.

End-to-end smoke testing tool for ``DIP20`` token canisters.
"""

__version__ = "0.1.0"
