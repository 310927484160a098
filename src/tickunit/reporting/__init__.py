from tickunit.reporting.junit import write_junit

__all__ = ["write_junit"]
