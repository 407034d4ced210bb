from tubeshelf.main import main

raise SystemExit(main())
