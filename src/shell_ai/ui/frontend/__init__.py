"""Frontend engine - 3-layer architecture (state machines / controller / view).

Import from the submodules directly: ``state`` and the machines carry no
Textual dependency, ``app`` is the only module that touches the terminal.
"""
