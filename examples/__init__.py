"""
Example scripts for fshydro.

Scripts:
    - run_spar.py: builds the template spar workspace, runs it and prints
      heave response amplitudes

Usage:
    # Create a workspace and run it from the CLI
    $ fshydro init spar_case
    $ fshydro run spar_case/INPUT_manifest.json

    # Or run the script from the project root
    $ python examples/run_spar.py
"""
