# Overview: Service layer for stock accounting, recipes, costing and journals.
