from book_bundler import cli

raise SystemExit(cli.main())
