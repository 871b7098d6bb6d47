"""
app_setup - install cron, deploy a static file and render a templated one.

Run with:
    sudo pantry plan cookbooks/testproject/recipes/app_setup.py
    sudo pantry apply cookbooks/testproject/recipes/app_setup.py

/qux.txt gets a new UUID on every run with the default --values random.
Use --values stored (or --values seeded --seed <s>) to keep it stable.
"""

from pantry import AptPackage, Cookbook, CookbookFile, Recipe, Template, generated_uuid

recipe = Recipe("app_setup", cookbook=Cookbook.for_recipe(__file__))

recipe.add(AptPackage("cron"))

recipe.add(CookbookFile(
    "/app_setup.txt",
    source="app_setup/qux.txt",
    owner="root",
    group="root",
    mode="0777",
    action="create",
))

recipe.add(Template(
    "/qux.txt",
    source="app_setup/qux.txt.j2",
    variables={"var": generated_uuid("app_setup/qux.txt/var")},
))
