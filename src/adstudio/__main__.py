from adstudio.cli import main

raise SystemExit(main())
