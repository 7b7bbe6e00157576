from dip20_player.utils.process import TimeoutExpired, run_command

__all__ = ["TimeoutExpired", "run_command"]
