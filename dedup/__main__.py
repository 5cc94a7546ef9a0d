from dedup.cli import main

raise SystemExit(main())
