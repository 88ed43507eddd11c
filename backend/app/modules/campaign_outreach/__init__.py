# Campaign Outreach Module
"""
Multi-step LinkedIn outreach campaigns.
Workflow:
1. Operator builds a campaign sequence (connection request -> message -> email)
2. Leads are added; each gets an execution cursor (campaign_leads)
3. The scheduler finds due leads and queues content for human approval
4. Approved content is dispatched through PhantomBuster (rate-limited)
5. The sequence advances on dispatch success or on the PhantomBuster webhook
"""
