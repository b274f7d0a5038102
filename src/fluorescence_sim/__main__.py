from fluorescence_sim.cli import main

raise SystemExit(main())
