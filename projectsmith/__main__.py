from projectsmith.pipeline import main

main()
