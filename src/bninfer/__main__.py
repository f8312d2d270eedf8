from bninfer.cli import main

raise SystemExit(main())
