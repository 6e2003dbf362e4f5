"""svsync: runit service directory reconciler.

Converges a staging root of runit service directories and an activation root of
symlinks (the directory ``runsvdir`` watches) to a declared set of services:
 - desired state loaded from YAML records
 - idempotent service directory construction (scripts, FIFOs, log dir)
 - activation links refused when something else occupies the path
 - teardown of services that dropped out of the configuration

The supervisor itself is only signalled (``sv restart`` / ``sv stop``).
"""

__version__ = "0.1.0"
